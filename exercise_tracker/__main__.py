from exercise_tracker.main import run

run()
