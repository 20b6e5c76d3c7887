"""
he-logreg CLI - Command line interface for encrypted logistic regression.

Trains a logistic-regression model on CKKS-encrypted data, plans the
multiplicative depth of a training iteration, and demonstrates the encrypted
sigmoid surrogate.
"""

__version__ = "1.0.0"
