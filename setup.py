"""
bqclient Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="bqclient",
    version="1.0.0",
    author="bqclient Contributors",
    description="Relational connection, command, reader and metadata client for BigQuery",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Database :: Front-Ends",
    ],
    python_requires=">=3.9",
    install_requires=[
        "google-cloud-bigquery>=3.20.0",
        "google-api-core>=2.11.0",
        "google-auth>=2.14.0",
        "duckdb>=0.10.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "pandas": ["pandas>=1.5.0"],
        "dev": ["pytest>=7.0.0", "pytest-cov>=4.0.0"],
        "all": ["pandas>=1.5.0", "pytest>=7.0.0", "pytest-cov>=4.0.0"],
    },
    entry_points={
        "console_scripts": [
            "bqclient=bqclient.cli:main",
        ],
    },
    keywords="bigquery, duckdb, database, client, metadata, pagination",
)
