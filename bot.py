#!/usr/bin/env python3
"""
Hay Day Derby Bot - Entry Point

Telegram companion bot for a Hay Day derby community.
The actual implementation is in the derbybot package.
"""

if __name__ == "__main__":
    from derbybot import main
    main()
