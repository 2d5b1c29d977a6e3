from setuptools import setup
from setuptools import find_packages

config = {
    'name' : 'treedyn',
    'version' : '0.1.0',
    'description' : 'Kinematics and dynamics of rigid body trees, with NumPy and CasADi backends',
    'install_requires' : [
        'numpy',
        'scipy',
        'casadi',
        'array-api-compat',
        'prettytable',
    ],
    'extras_require' : {
        'test' : ['pytest'],
    },
    'python_requires' : '>=3.10',
    'package_dir' : {'': 'src'},
    'packages' : find_packages('src'),
}

setup(**config)
