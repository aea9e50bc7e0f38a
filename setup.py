# Copyright © 2025 Delphi Oracle

import re
import os
import codecs
from os import path
from io import open
from setuptools import setup, find_packages


here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with codecs.open(os.path.join(here, "delphi_canonical/__init__.py"), encoding="utf-8") as init_file:
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", init_file.read(), re.M)
    if not version_match:
        raise RuntimeError("Unable to find version string in delphi_canonical/__init__.py")
    version_string = version_match.group(1)


requirements = [
    # HTTP and networking
    "httpx>=0.27.0",

    # Monitoring and logging
    "structlog>=23.2.0",

    # Environment and configuration
    "python-dotenv>=1.0.0",

    # Web framework
    "starlette>=0.30.0",
    "pydantic>=2.0.0",
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.38.0",

    # Utilities
    "click>=8.1.0",

    # Ed25519 signing and verification
    "cryptography>=41.0.7",
]

test_requirements = [
    # Testing
    "pytest>=8.0.0",
    "pytest-cov>=4.1.0",
    "pytest-mock>=3.10.0",
    "pytest-asyncio>=0.21.0",
]

setup(
    name="delphi_oracle",
    version=version_string,
    description="Ed25519-signed historical price attestations for prediction markets",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Delphi Oracle Team",
    license="MIT",
    packages=find_packages(include=['delphi_canonical', 'delphi_canonical.*', 'oracle_tee', 'oracle_tee.*', 'gateway', 'gateway.*', 'delphi_audit', 'delphi_audit.*']),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
    },
    entry_points={
        "console_scripts": [
            "delphi-oracle=delphi_audit.cli:main"
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Security :: Cryptography"
    ],
)
