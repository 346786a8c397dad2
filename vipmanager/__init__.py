"""
VIP manager: keeps a pool of virtual addresses balanced across the members
of a node group.
"""
