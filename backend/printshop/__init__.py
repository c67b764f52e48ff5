"""Print shop order pricing and live order sync."""
