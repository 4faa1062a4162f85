from setuptools import setup, find_packages

setup(
    name="school-signage-display",
    version="0.1.0",
    description="Real-time settings sync for school digital signage displays",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"school_signage.common": ["default_config.yaml"]},
    python_requires=">=3.8",
    install_requires=[
        "PyYAML>=6.0",
        "pyzmq>=25.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "pylint>=2.17.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "signage-display=school_signage.display.display_app:main",
            "signage-admin=school_signage.admin.console:main",
        ]
    },
)
