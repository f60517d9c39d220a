"""Setup configuration for dynaform package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="dynaform",
    version="0.1.0",
    description="Headless dynamic forms: declarative conditional field logic and async validation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["dynaform", "dynaform.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",  # .env support for pydantic-settings
        "pyyaml>=6.0",
        "structlog>=23.1.0",
    ],
    extras_require={
        "adapters": [
            "jsonschema>=4.18.0",
            "marshmallow>=3.18.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "jsonschema>=4.18.0",
            "marshmallow>=3.18.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "jsonschema>=4.18.0",
            "marshmallow>=3.18.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.990",
        ],
    },
    entry_points={
        "console_scripts": [
            "dynaform=dynaform.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="forms validation conditional-logic dynamic-forms pydantic jsonschema marshmallow",
)
