"""
mnist_demo package
~~~~~~~~~~~~~~~~~~

MNIST inference demo. Loads a pretrained 3-layer fully-connected classifier
from a checkpoint directory, evaluates it on a fixed sample set and serves
the results as a web page.
"""

__version__ = "1.0.0"
