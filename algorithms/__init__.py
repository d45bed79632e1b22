"""
Algorithms package for the Hybrid Scheduling & Deadlock Simulator.
Contains the adaptive dispatcher, deadlock detection and recovery.
"""
