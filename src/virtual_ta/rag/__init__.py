"""virtual-ta answer pipeline: providers, index, retrieval, generation, outcome log."""
