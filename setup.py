from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="licensechain",
    version="1.0.0",
    author="LicenseChain",
    author_email="support@licensechain.app",
    description="Python SDK for the LicenseChain license management API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/licensechain/licensechain-python-sdk",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=[
        "httpx>=0.24",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "black>=23.0",
            "mypy>=1.0",
            "pylint>=2.17",
            "fastapi>=0.100",
            "python-dotenv>=1.0",
        ],
        "examples": [
            "fastapi>=0.100",
            "uvicorn>=0.23",
            "python-dotenv>=1.0",
        ],
    },
    package_data={
        "licensechain": ["py.typed"],
    },
)
