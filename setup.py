"""Setup configuration for Bantrap Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="bantrap",
    version="0.1.0",
    description="A Discord bot that bans anyone posting in a designated trap channel",
    packages=find_packages(where="src", include=["bantrap", "bantrap.*"]),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.5",
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "bantrap=bantrap.main:main",
        ],
    },
)
