"""HTTP clients for the price oracle, randomness coordinator and wallet service."""
