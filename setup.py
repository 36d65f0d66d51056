from setuptools import setup, find_packages

setup(
    name="amlang",
    version="0.1.0",
    description="amlang: an expression language of named algorithms with case expressions and pipelines",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="amlang Project",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "amlang=amlang.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Interpreters",
    ],
)
