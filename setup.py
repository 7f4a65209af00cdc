"""Setup configuration for the unicycle Discord scheduler bot."""

from setuptools import setup, find_packages

setup(
    name="unicycle",
    version="0.0.1",
    description="A Discord bot that runs persistent scheduled moderation jobs",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.4",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "unicycle=unicycle.main:main",
        ],
    },
)
