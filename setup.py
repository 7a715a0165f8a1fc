from setuptools import setup, find_packages

setup(
    name="perf_solver",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        'pyyaml',
        'numpy',
        'scipy',
        'python-dotenv'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'perf-solver=perf_solver.main:run',
        ],
    },
)
