"""
parser package

Port specification parsing and the connection event model.
"""
