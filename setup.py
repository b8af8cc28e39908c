import setuptools

setuptools.setup(
    name='agx',
    version='0.1',
    license='MIT',
    zip_safe=False,
    packages=setuptools.find_packages(include=['agx', 'agx.*']),
    python_requires='>=3.8',
    install_requires=[
        'pyyaml', 'rich', 'numpy'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['agx=agx.main:main'],
    },
    description='Streaming writer and reader for AGXB dumps of animated geometry parameters.',
)
