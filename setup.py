# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Setup configuration for the system-config package."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="system-config",
    version="0.1.0",
    author="Copilot-for-Consensus Contributors",
    description="Versioned configuration, encrypted secrets and change notifications for multi-tenant services",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(
        include=[
            "sysconfig_service",
            "sysconfig_storage",
            "sysconfig_cache",
            "sysconfig_config",
            "sysconfig_secrets",
            "sysconfig_logging",
            "sysconfig_metrics",
        ]
    ),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",  # Data models
        "pymongo>=4.6.3",  # MongoDB document store
        "redis>=5.0.0",  # Shared cache
        "cryptography>=42.0.0",  # AES-GCM secret encryption
        "requests>=2.31.0",  # Webhook delivery
        "prometheus-client>=0.19.0",  # Metrics
        "fastapi>=0.110.0",  # REST API
        "uvicorn>=0.27.0",  # ASGI server
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pylint>=3.0.0",
            "mypy>=1.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "hypothesis>=6.0.0",
            "httpx>=0.24.0",  # FastAPI TestClient transport
        ],
    },
    entry_points={
        "console_scripts": [
            "system-config=sysconfig_service.main:main",
        ],
    },
)
