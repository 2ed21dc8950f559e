from setuptools import find_packages, setup

setup(
    name='obs-metrics-bridge',
    version='1.0.0',
    description='Prometheus exporter bridge for OBS Studio engine statistics and audio levels',
    author='isantolin',
    author_email='',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.11',
    install_requires=[
        'prometheus-client',
        'msgspec',
        'marshmallow>=3.13',
        'tenacity',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
