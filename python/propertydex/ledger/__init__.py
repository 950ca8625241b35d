"""Order settlement ledger: positions derived from buy/sell orders."""
