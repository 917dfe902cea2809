from setuptools import setup, find_packages


def readme():
    with open('README.md') as f:
        return f.read()


setup(
    name='prioq',
    version='1.0.0',
    packages=find_packages(exclude=["tests",]),
    description='Batch means simulation of a two-stage preemptive priority '
                'queue',
    long_description=readme(),
    long_description_content_type='text/markdown',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.8',
        'Intended Audience :: Science/Research',
    ],
    keywords='queueing systems, discrete event simulation, batch means',
    license='MIT',
    python_requires=">=3.8",
    install_requires=[
        'numpy',
        'scipy',
        'tabulate',
        'click',
    ],
    include_package_data=True,
    zip_safe=False,
    entry_points={
        'console_scripts': ['prioq=prioq.cli:cli'],
    },
    extras_require={
        "test": ["pytest"],
    }
)
