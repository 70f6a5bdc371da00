# setup.py
from setuptools import setup, find_packages

setup(
    name="taxatree",
    version="0.3.0",
    description="Taxonomic trees built from classifications, with queries, filtering and bound datasets",
    author="taxatree Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": [
            "taxatree=taxatree.cli:main",
        ],
    },
    install_requires=[
        "numpy>=1.20",
        "pandas>=1.3,<3",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
