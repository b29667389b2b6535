from setuptools import setup, find_packages

setup(
    name="cfgwatch",
    version="0.1.0",
    description="Watch a local config file and apply per-method policies live",
    author="Nick Guerriero",
    author_email="nickguerriero@example.com",
    packages=find_packages(include=["cfgwatch", "cfgwatch.*"]),
    python_requires=">=3.8",
    install_requires=[
        # runtime dependencies
        "watchdog",
        "tenacity",
        "python-json-logger",
        "python-dotenv",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-timeout>=2.4.0",
            "flake8",
        ],
    },
    entry_points={
        "console_scripts": [
            "cfgwatch=cfgwatch.app:main",
        ],
    },
)
