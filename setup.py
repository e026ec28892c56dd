from setuptools import setup, find_packages

setup(
    name="equity-tsa",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["models", "exceptions", "run_analysis"],
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "statsmodels",
        "arch",
        "yfinance",
        "duckdb",
        "tqdm",
        "psutil",
        "python-dotenv",
        "matplotlib",
        "seaborn",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "equity-tsa=run_analysis:main",
        ],
    },
    python_requires=">=3.8",
)
