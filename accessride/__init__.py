"""AccessRide fare calculation and booking classification."""
