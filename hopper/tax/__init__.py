"""Tax categories, zones, rates and order tax calculation."""