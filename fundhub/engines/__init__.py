"""Pure calculation engines: tier rules and distribution waterfall maths."""
