"""Document store adapters holding chapter records."""
