"""
fleetdispatch - Fleet dispatch record validation service
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="fleetdispatch",
    version="1.0.0",
    author="Fleet Dispatch Team",
    author_email="",
    description="Request validation and referential integrity for a fleet dispatch API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.20.0",
        "sqlalchemy>=2.0.0",
        "pydantic>=2.0.0",
        "python-multipart>=0.0.5",
        "pyyaml>=6.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "mysql": [
            "pymysql>=1.0",
        ],
        "dev": [
            "pytest>=7.0",
            "httpx>=0.24.0",
            "black>=23.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "fleetdispatch=fleetdispatch.cli:cli_main",
        ],
    },
    keywords="fastapi, sqlalchemy, validation, fleet, dispatch, ride-hailing",
)
