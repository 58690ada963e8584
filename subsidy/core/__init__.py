"""Domain core: lifecycle rules, document gate and ledgers."""
