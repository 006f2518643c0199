"""Bloom filter module for bloomblock."""

from .hashing import BLOOM_SEED, Key, bloom_hash, murmur_hash
from .BloomFilterPolicy import BloomFilterPolicy
from .models import FilterBlock
from .FilterBlockBuilder import FilterBlockBuilder
from .FilterBlockReader import FilterBlockReader

__all__ = [
    "BLOOM_SEED",
    "Key",
    "bloom_hash",
    "murmur_hash",
    "BloomFilterPolicy",
    "FilterBlock",
    "FilterBlockBuilder",
    "FilterBlockReader",
]
