"""Repository layer: DB access helpers.

Keep functions thin and focused, so services avoid SQL strings.
"""
