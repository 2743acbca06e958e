"""
bridgeline: Batch cross-chain NFT bridging with a pre-execution validation gate.

Drives each NFT in a batch through approval, destination-chain simulation
and bridge submission, publishing one consistent progress view while
isolating per-item failures.
"""

__version__ = "0.1.0"
