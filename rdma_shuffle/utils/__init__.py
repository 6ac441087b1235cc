from .utility import RdmaShuffleLogger

__all__ = ['RdmaShuffleLogger']
