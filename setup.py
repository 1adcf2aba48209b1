from setuptools import setup, find_packages

setup(
    name="DynamicFit",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas",
        "matplotlib",
        "scipy",
    ],
    extras_require={
        "parallel": ["joblib"],
        "progress": ["tqdm"],
        "test": ["pytest", "joblib"],
    },
    entry_points={
        "console_scripts": ["dynamicfit=dynamicfit.__main__:main"],
    },
    description="Dynamic fit index cutoffs for multi-factor CFA models",
)
