"""Round-based prize-pool lottery with oracle-driven draws."""
