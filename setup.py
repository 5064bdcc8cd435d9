from setuptools import setup, find_packages

setup(
    name="tradejournal-sync-backend",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.0.0",
        "typing_extensions>=4.5.0",
        "requests>=2.31.0",
    ],  # boto3 is provided by Lambda
    extras_require={
        "local": [
            "boto3>=1.34.0",
            "botocore>=1.34.0",
        ],
        "test": [
            "boto3>=1.34.0",
            "botocore>=1.34.0",
            "moto>=5.0.0",
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
        "dev": [
            "mypy>=1.0.0",
            "types-boto3>=1.0.0",
            "types-requests>=2.31.0",
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "isort>=5.0.0",
            "flake8>=6.0.0"
        ]
    }
)
