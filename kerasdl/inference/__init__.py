"""Loading models and weights trained elsewhere."""
