"""
  ______            __________          __
 / ____/___  ____  / / ____/ /_  ____ _/ /_
/ /   / __ \/ __ \/ / /   / __ \/ __ `/ __/
/ /___/ /_/ / /_/ / / /___/ / / / /_/ / /_
\____/\____/\____/_/\____/_/ /_/\__,_/\__/

CoolChat - a LAN text chat server with UDP discovery.

Clients locate the server with a broadcast probe, log in with a username and
password, and exchange broadcast or private lines over a persistent TCP
connection. Every delivered line is appended to a flat history file.
"""

__version__ = "1.0.0"
