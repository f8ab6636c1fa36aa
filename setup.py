from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="roster-sync",
    version="0.1.0",
    author="Directory Services",
    description="Reconciles a membership roster into Google Workspace accounts, groups and account lifecycle",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.25.0",
        "pandas>=1.3.0",
        "python-dotenv>=0.19.0",
        "sqlalchemy>=1.4.0",
        "google-api-python-client>=2.50.0",
        "google-auth>=2.0.0",
        "google-auth-httplib2>=0.1.0",
        "httplib2>=0.22.0",
    ],
    extras_require={
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
        "all": [
            "psycopg2-binary>=2.9.0",
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "roster-sync=scripts.sync.roster_sync:main",
        ],
    },
)
