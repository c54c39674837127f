"""
SoccerLive

Polls a football data provider for round standings, league tables and top
scorers, and republishes them to a display client on a schedule that follows
the match calendar.
"""

__version__ = "1.0.0"
__author__ = "SoccerLive Team"
