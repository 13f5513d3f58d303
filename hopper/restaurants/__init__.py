"""Restaurants, their operating hours and search."""