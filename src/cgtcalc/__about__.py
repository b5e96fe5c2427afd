__title__ = "cgtcalc"
__version__ = "0.1.0"
