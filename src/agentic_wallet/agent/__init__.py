"""Rule-based agent planning."""
