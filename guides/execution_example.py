"""Example showing how to run a workflow with the executor and lifecycle hooks.

Persistence is left to the hooks; here they only print. Set RESEND_API_KEY to
let the email step actually send.
"""

import asyncio

from flowrunner import ExecutionHooks, UserInfo, WorkflowInput, create_executor

WORKFLOW = {
    "id": "wf-onboarding",
    "name": "Onboarding",
    "userId": "user-1",
    "triggerType": "webhook",
    "definition": {
        "triggerStepId": "signup",
        "steps": [
            {"id": "signup", "type": "webhook", "name": "Signup", "position": 0},
            {
                "id": "is_pro",
                "type": "conditional",
                "name": "Pro plan?",
                "position": 1,
                "config": {
                    "condition": "trigger.data.plan == 'pro'",
                    "true_steps": ["notify_sales"],
                },
            },
            {
                "id": "notify_sales",
                "type": "http_request",
                "name": "Notify sales",
                "position": 2,
                "config": {
                    "url": "https://httpbin.org/post",
                    "body": {"email": "{{trigger.data.email}}"},
                    "retry": {"maxAttempts": 3, "baseDelay": 500},
                },
            },
            {
                "id": "wait",
                "type": "delay",
                "name": "Wait a day",
                "position": 3,
                "config": {"duration": 1, "unit": "days"},
            },
            {
                "id": "welcome",
                "type": "send_email",
                "name": "Welcome email",
                "position": 4,
                "config": {
                    "to": "{{trigger.data.email}}",
                    "subject": "Welcome aboard",
                    "body": "Hi {{trigger.data.name}}, thanks for joining.",
                },
            },
        ],
    },
}


async def main():
    executor = create_executor()
    workflow = WorkflowInput.model_validate(WORKFLOW)
    user = UserInfo(id="user-1", email="owner@example.com")

    hooks = ExecutionHooks(
        on_step_start=lambda step_id: print(f"-> {step_id}"),
        on_step_complete=lambda result: print(f"<- {result.step_id}: {result.status}"),
    )
    trigger_data = {"email": "ada@example.com", "name": "Ada", "plan": "pro"}

    result = await executor.execute(workflow, user, "exec-1", hooks, trigger_data=trigger_data)
    print(f"Execution {result.execution_id}: {result.status}")

    if result.status == "waiting":
        print(f"Resuming early (scheduled for {result.resume_at.isoformat()})")
        resumed = await executor.execute(
            workflow,
            user,
            "exec-1",
            hooks,
            trigger_data=trigger_data,
            resume_after=result.resume_after,
            previous_results=result.steps,
        )
        print(f"Execution {resumed.execution_id}: {resumed.status} {resumed.error or ''}")


if __name__ == "__main__":
    asyncio.run(main())
