"""Paper trading simulator backend."""
