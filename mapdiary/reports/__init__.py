"""Weekly and monthly reports generated from diary maps."""
