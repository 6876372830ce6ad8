from setuptools import setup, find_packages

if __name__ =='__main__':
    setup(
        name='snowsim',
        version='1.0',
        description='2D MLS-MPM snow simulation',
        author='Krushang Gabani',
        author_email='krushang@buffalo.edu',
        keywords='Physics Simulation',
        packages=find_packages(include=['snowsim', 'snowsim.*']),
        python_requires='>=3.8',
        install_requires = [
            "imageio",
            "numpy",
            "pyyaml",
            "taichi",
        ],
        extras_require = {
            "test": [
                "pytest",
            ]
        }

    )
