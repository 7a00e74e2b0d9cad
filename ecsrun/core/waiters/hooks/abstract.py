class AbstractWaiterHook:

    def __init__(self, obj):
        self.obj = obj

    def setup(self, status, task, num_attempts, **kwargs):
        """
        Do any necessary setup on the waiter iteration before we've done our per-state processing.   This will get
        called once per iteration.
        """
        pass

    def waiting(self, status, task, num_attempts, **kwargs):
        """
        Do something when our waiter status is 'waiting'.
        """
        pass

    def success(self, status, task, num_attempts, **kwargs):
        """
        Do something when our waiter status is 'success'.
        """
        pass

    def timeout(self, status, task, num_attempts, **kwargs):
        """
        Do something when our waiter status is 'timeout'.
        """
        pass

    def cancelled(self, status, task, num_attempts, **kwargs):
        """
        Do something when our waiter status is 'cancelled'.
        """
        pass

    def cleanup(self, status, task, num_attempts, **kwargs):
        """
        Do any necessary cleanup after the waiter iteration has completed and we've done our per-state processing.
        This will get called once per iteration.
        """
        pass

    def __call__(self, status, task, num_attempts, **kwargs):
        """
        args:
            * 'status': the current state of the waiter. One of 'waiting', 'success', 'timeout' or 'cancelled'.
            * 'task': the InvokedTask from the last poll of our waiter
            * 'num_attempts': the current iteration number

        kwargs: see :py:class:`ecsrun.core.waiters.TaskStoppedWaiter`
        """
        self.setup(status, task, num_attempts, **kwargs)
        if status == 'waiting':
            self.waiting(status, task, num_attempts, **kwargs)
        elif status == 'success':
            self.success(status, task, num_attempts, **kwargs)
        elif status == 'timeout':
            self.timeout(status, task, num_attempts, **kwargs)
        elif status == 'cancelled':
            self.cancelled(status, task, num_attempts, **kwargs)
        self.cleanup(status, task, num_attempts, **kwargs)
