from setuptools import setup, find_packages

setup(
    name="yaml-validation-lib",
    version="0.1.0",
    description="Form field validation configured with YAML rule sets",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        'yaml_validation': ['ruleset.schema.json'],
    },
    include_package_data=True,
    install_requires=[
        'pyyaml>=6.0',
        'jsonschema>=4.17.0',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.9',
)
